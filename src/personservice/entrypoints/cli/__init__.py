"""Console command for personService."""
