"""World-info ingestion and knowledge-base engine."""
