"""Named-pipe transport and the request/response wire format."""
