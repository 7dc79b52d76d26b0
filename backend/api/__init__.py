"""HTTP front door for pipeline runs."""
