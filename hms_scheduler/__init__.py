"""Hospital appointment booking and patient registration core."""
