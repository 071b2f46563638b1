"""Team identity sources: names, aliases, ratings and ranking tables."""
