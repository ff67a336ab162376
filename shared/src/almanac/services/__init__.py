"""Service layer shared by the pipeline and the API."""
