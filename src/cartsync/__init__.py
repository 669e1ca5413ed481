"""Library manager and SD card sync for cartridge-based retro handhelds."""

__version__ = "0.1.0"
