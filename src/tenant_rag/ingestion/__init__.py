"""
Ingestion — chunking, embedding and storing tenant documents.

Text extraction adapters (:mod:`~tenant_rag.ingestion.loader`) feed
normalised text to the chunker; the
:class:`~tenant_rag.ingestion.pipeline.IngestionPipeline` embeds and
stores each chunk, recording per-chunk outcomes in an
:class:`~tenant_rag.ingestion.models.IngestionReport`.
"""
