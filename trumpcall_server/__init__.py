"""HTTP and WebSocket surface for trumpcall rooms."""
