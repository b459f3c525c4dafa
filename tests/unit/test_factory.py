"""Test shared component factory"""

from app.rag.factory import KnowledgeServiceFactory


def test_components_are_shared_and_resettable():
    KnowledgeServiceFactory.reset()
    try:
        embeddings = KnowledgeServiceFactory.get_embeddings_service()
        retriever = KnowledgeServiceFactory.get_retriever()

        assert KnowledgeServiceFactory.get_embeddings_service() is embeddings
        assert retriever.embeddings is embeddings
        assert retriever.vector_store is KnowledgeServiceFactory.get_vector_store()
        assert retriever.repository is KnowledgeServiceFactory.get_repository()

        KnowledgeServiceFactory.reset()
        assert KnowledgeServiceFactory.get_embeddings_service() is not embeddings
    finally:
        KnowledgeServiceFactory.reset()
