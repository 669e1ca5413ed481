"""Core domain and processing modules for CartSync."""
