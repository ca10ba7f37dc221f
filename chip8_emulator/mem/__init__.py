"""4K memory model and built-in font."""
