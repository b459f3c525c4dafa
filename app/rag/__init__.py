"""RAG module - document ingestion and retrieval"""
