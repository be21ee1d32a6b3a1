"""Chat history models and storage backends."""
