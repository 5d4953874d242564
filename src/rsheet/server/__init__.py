"""Server loop and transports."""
