"""Review history persistence for mdcouncil."""
