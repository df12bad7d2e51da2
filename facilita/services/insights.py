import logging
import time
from typing import Any, Optional

import httpx

from facilita.core.config import settings

logger = logging.getLogger("facilita.insights")

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
MISSING_KEY_MESSAGE = "Funcionalidade indisponível: Chave de API não configurada no ambiente."
EMPTY_RESPONSE_MESSAGE = "Não foi possível gerar a análise no momento."
CONNECTION_ERROR_MESSAGE = (
    "Erro ao conectar com o serviço de inteligência artificial. Verifique sua conexão."
)


class InsightError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def build_summary(summary: dict[str, Any]) -> str:
    return (
        f"Mês: {summary['month']}\n"
        f"Receita Confirmada: R$ {summary['confirmed_revenue']:.2f}\n"
        f"Receita Potencial Total: R$ {summary['potential_revenue']:.2f}\n"
        f"Clientes Pagos: {summary['paid_count']}\n"
        f"Clientes Pendentes: {summary['pending_count']}\n"
        f"Clientes Inadimplentes: {summary['late_count']}\n"
        f"Clientes Estouraram Limite de Serviço: {summary['over_limit_count']}\n"
        f"Total de Clientes Ativos: {summary['active_clients']}"
    )


def _build_prompt(summary_text: str) -> str:
    return (
        "Atue como um consultor financeiro sênior para um escritório de contabilidade.\n"
        "Analise os seguintes dados do mês atual e forneça um resumo executivo curto "
        "(máximo 3 parágrafos) com:\n"
        "1. Saúde financeira atual.\n"
        "2. Riscos identificados (foco em inadimplência e estouro de limites).\n"
        "3. Uma recomendação de ação imediata.\n\n"
        f"Dados:\n{summary_text}\n\n"
        "Responda em Português do Brasil, com tom profissional e direto."
    )


def _extract_error_message(res: httpx.Response) -> str:
    try:
        payload = res.json()
    except ValueError:
        return res.text
    if isinstance(payload, dict):
        err = payload.get("error") or {}
        return err.get("message") or res.text
    return res.text


def _extract_text(payload: dict) -> str:
    for candidate in payload.get("candidates") or []:
        parts = (candidate.get("content") or {}).get("parts") or []
        texts = [part.get("text") for part in parts if isinstance(part.get("text"), str)]
        joined = "".join(texts).strip()
        if joined:
            return joined
    return ""


def request_insight(summary_text: str, api_key: str, model: Optional[str] = None) -> str:
    model = model or settings.GEMINI_MODEL
    body = {"contents": [{"role": "user", "parts": [{"text": _build_prompt(summary_text)}]}]}
    start = time.perf_counter()
    with httpx.Client(timeout=25.0, headers={"x-goog-api-key": api_key}) as client:
        res = client.post(f"{GEMINI_BASE_URL}/{model}:generateContent", json=body)
    if res.status_code >= 400:
        raise InsightError(
            f"Gemini erro HTTP {res.status_code}: {_extract_error_message(res)}", status_code=res.status_code
        )
    text = _extract_text(res.json())
    logger.info("insight model=%s latency_ms=%d", model, int((time.perf_counter() - start) * 1000))
    return text


def get_financial_insights(summary_text: str) -> str:
    api_key = settings.GEMINI_API_KEY
    if not api_key:
        return MISSING_KEY_MESSAGE
    try:
        text = request_insight(summary_text, api_key)
    except (httpx.HTTPError, InsightError, ValueError):
        logger.exception("Erro ao consultar Gemini")
        return CONNECTION_ERROR_MESSAGE
    return text or EMPTY_RESPONSE_MESSAGE
