"""Services for the resource catalog backend."""
