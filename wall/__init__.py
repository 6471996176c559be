"""Live message wall: backend service and feed synchronization client."""
