"""Bot strategies and a bot arena for trumpcall rooms."""
