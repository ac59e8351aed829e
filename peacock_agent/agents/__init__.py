# =============================================================================
# Agents Package — Tools the Finance Chat Agent Calls
# =============================================================================
#   - memory_tools.py: semantic search over the finance memory index,
#     rendered as labelled text blocks for the LLM
#   - member_list.py: loan accounts rendered as a markdown member list
#   - api_tools.py: FINANCE_TOOLS registry (memory search plus the upstream
#     Peacock API operations), each with a pydantic input model
# =============================================================================
