"""System prompt templates, one per query purpose."""

from typing import Final

from op_monitor.constants import (
    PURPOSE_ANALYSIS,
    PURPOSE_CONTEXTUAL,
    PURPOSE_REPORTING,
    PURPOSE_SUGGESTIONS,
)

ANALYSIS_PROMPT: Final[str] = """You are a security analyst monitoring an authorized red team exercise.
Analyze the provided activity data and identify:
1. Security implications
2. Potential improvements
3. Risk assessment (include a "riskLevel" of low, medium, high or critical)
4. Operational efficiency
5. Next recommended actions

Respond in JSON format with structured analysis."""

REPORTING_PROMPT: Final[str] = """You are a professional penetration testing report generator.
Create comprehensive, executive-ready security reports from raw operational data.
Include executive summary, technical findings, risk matrix, and remediation recommendations.
Use industry-standard frameworks (OWASP, NIST, MITRE ATT&CK)."""

SUGGESTIONS_PROMPT: Final[str] = """You are an advisor for an authorized red team engagement.
Based on current activities and context, provide specific, actionable suggestions for:
1. Coverage gaps in the assessment
2. Tools and techniques worth validating
3. Detection and response observations for the blue team
4. Evidence collection for the final report
5. Engagement planning

Focus on authorized testing scenarios only."""

CONTEXTUAL_PROMPT: Final[str] = """You are monitoring an authorized red team exercise in real-time.
Provide immediate feedback and situational awareness.
Identify patterns, anomalies, and optimization opportunities."""

SYSTEM_PROMPTS: Final[dict[str, str]] = {
    PURPOSE_ANALYSIS: ANALYSIS_PROMPT,
    PURPOSE_REPORTING: REPORTING_PROMPT,
    PURPOSE_SUGGESTIONS: SUGGESTIONS_PROMPT,
    PURPOSE_CONTEXTUAL: CONTEXTUAL_PROMPT,
}


def render_event_analysis(
    source_id: str,
    action: str,
    payload_json: str,
    context_json: str,
) -> str:
    return (
        "Analyze this red team activity:\n\n"
        f"Source: {source_id}\n"
        f"Action: {action}\n"
        f"Data: {payload_json}\n"
        f"Context: {context_json}\n\n"
        "Provide structured analysis including risk assessment and recommendations."
    )


def render_periodic_analysis(digest: str) -> str:
    return (
        "Analyze recent red team activities for patterns and insights:\n\n"
        f"{digest}\n\n"
        "Provide situational awareness and recommendations."
    )


def render_suggestions(context_json: str) -> str:
    return (
        "Based on the current red team operation context, generate suggestions:\n\n"
        f"Context: {context_json}\n\n"
        "Provide specific, actionable recommendations for the next phase of the engagement."
    )


def render_report(report_json: str) -> str:
    return (
        "Generate a professional red team operation report:\n\n"
        f"{report_json}\n\n"
        "Create an executive summary, technical findings, risk assessment, and recommendations."
    )
