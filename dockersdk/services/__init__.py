"""Services built on top of the transport."""
