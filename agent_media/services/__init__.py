"""HTTP plumbing and request shaping shared by the remote providers."""
