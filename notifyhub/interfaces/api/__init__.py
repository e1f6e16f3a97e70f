"""HTTP and websocket adapter for rendering surfaces."""
