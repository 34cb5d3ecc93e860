"""Command-line front end for mdcouncil."""
