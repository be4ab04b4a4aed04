"""Mirror RSS headlines into a key-value drive, writing each item only when it changes."""
