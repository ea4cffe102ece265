"""External user-profile service client."""
