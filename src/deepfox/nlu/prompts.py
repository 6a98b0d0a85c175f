"""
Prompt templates for the intent classifier.
"""
from ..models.catalog import Catalog


SYSTEM_INSTRUCTION_TEMPLATE = """You are the brain of "{business_name}", a booking assistant for a consulting firm.
Your job is to analyze user input and extract intent, entities, and recommend services based on problems described.

Available Services:
{services}

Rules:
1. If the user describes a problem (e.g., "tax audit help"), map it to the closest Service ID.
2. If the user wants to book, intent is 'BOOK'.
3. If the user wants to change a booking, intent is 'RESCHEDULE'.
4. If the user wants to cancel, intent is 'CANCEL'.
5. Always provide a friendly, professional 'replyText' to be displayed to the user.
6. If the user input is just a greeting, intent is 'GENERAL_QUERY' and ask how you can help.

Respond with a single JSON object with these keys:
- "intent": one of BOOK, RESCHEDULE, CANCEL, GENERAL_QUERY, UNKNOWN
- "recommendedServiceId": the ID of the best matching service, if applicable
- "extractedDate": any date mentioned, in ISO format YYYY-MM-DD
- "replyText": a polite, conversational response to the user
"""


def build_system_instruction(catalog: Catalog, business_name: str = "Consultancy Deep Fox") -> str:
    """
    Build the classifier system instruction for a catalog.

    Args:
        catalog: Services the classifier may recommend
        business_name: Name used to introduce the assistant

    Returns:
        System instruction text
    """
    services = "\n".join(
        f"- ID: {s.id}, Name: {s.name}, Desc: {s.description}"
        for s in catalog.services
    )
    return SYSTEM_INSTRUCTION_TEMPLATE.format(business_name=business_name, services=services)
