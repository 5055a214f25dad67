"""Event indexer and derived-state engine for the Stakable NFT collection."""
