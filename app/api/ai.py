from fastapi import APIRouter, Depends, HTTPException
from app.dependencies import get_ai_provider, get_enrichment_chain
from app.errors import ConfigurationError, UpstreamError
from app.schemas import AskRequest, AskResponse, DiseaseInfo, DiseaseInfoRequest
from app.services.enrichment import EnrichmentChain, OpenRouterProvider

router = APIRouter(prefix="/ai", tags=["AI"])

@router.post("/disease-info", response_model=DiseaseInfo)
def disease_info(request: DiseaseInfoRequest, chain: EnrichmentChain = Depends(get_enrichment_chain)):
    """
    Disease information for a class label, through the same provider chain
    the detection worker uses. Always answers.
    """
    return chain.enrich(request.disease_class)

@router.post("/ask", response_model=AskResponse)
def ask(request: AskRequest, provider: OpenRouterProvider = Depends(get_ai_provider)):
    """
    Free-form question about plant diseases and crop care.
    """
    try:
        answer = provider.ask(request.question, request.disease_class)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=e.message)
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=e.message)
    return AskResponse(answer=answer)
