"""
Query API route.
Answers questions from the indexed documents.
"""
from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_retrieval_pipeline
from ..errors import UpstreamError
from ..logging_config import logger
from ..schemas import QueryBody, QueryResponse, Source, error_responses
from ..services.retrieval_service import RetrievalPipeline

router = APIRouter(tags=["query"])


@router.post("/query", response_model=QueryResponse, responses=error_responses(400, 500))
async def query_documents(
    payload: QueryBody,
    pipeline: RetrievalPipeline = Depends(get_retrieval_pipeline),
):
    """
    Retrieval-augmented answer for a question.

    Workflow:
    1. Embed the question
    2. Find the top-k most similar chunks
    3. Build context and ask the LLM

    Returns:
        The generated answer and the chunks it was grounded on
    """
    conversation_id = payload.conversation_id
    if conversation_id is not None:
        conversation_id = str(conversation_id)

    try:
        result = await pipeline.retrieve(payload.query, conversation_id)
    except UpstreamError as e:
        logger.error("Error processing query", error=str(e), details=e.details)
        raise HTTPException(status_code=500, detail="Failed to process query")

    return QueryResponse(
        answer=result.answer,
        sources=[
            Source(
                id=s.id,
                title=s.title,
                source=s.source,
                content=s.content,
                similarity=s.similarity,
            )
            for s in result.sources
        ],
    )
