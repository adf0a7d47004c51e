"""Output document and staged page rendering."""
