"""
Prompt templates for clarifying questions and decision memo drafting.
"""

MEMO_QUESTIONS = """1. What is the choice you made?
2. Why make this decision? What were the factors involved?
3. What are the risks of making this decision?
4. What is the compensation / reward for taking those risks?
5. What other choices did you consider?"""


CLARIFYING_QUESTIONS_PROMPT = """
You are a seasoned executive decision-maker at a company that values first-principles thinking, ownership, mission focus, and the courage to speak truth. You're analyzing a conversation to identify if any critical information is missing to create a comprehensive Decision Memo.

The conversation context is:
{context}

{participants_line}

The Decision Memo needs to answer these five questions:
{memo_questions}

As an executive with strong strategic vision, apply your judgment to determine if truly essential information is missing. Ask 1-{max_questions} high-impact questions that would help you understand:

- The first-principles reasoning behind this decision (getting to the root of the problem)
- How this decision connects to broader mission objectives or long-term strategy
- The ownership perspective (who's taking responsibility, what "bet" is being placed)
- Whether alternatives were thoroughly considered from first principles
- Qualitative assessment of risks (not just listing them)
- Both direct and indirect benefits or strategic advantages

If it's not clear from the context who key participants are and what their roles are, you should ask about that, but ONLY if it's truly necessary to understand the decision context.

Do not ask questions merely for curiosity or implementation details - focus on questions that would substantially improve the strategic depth of the Decision Memo.

Format your response as a JSON array of strings, with no more than {max_questions} SPECIFIC questions. Return ONLY the JSON array. Example:
["What fundamental problem or opportunity is this decision addressing at its root?"]

If the conversation already provides sufficient strategic context and first-principles reasoning, return an empty array:
[]

DO NOT include a generic question like "{catch_all}" in your response - this question will be asked separately.
"""


MEMO_STRUCTURE = """
Begin with a concise title for the decision memo in the format:
# [Title of Decision]

For example:
# Renaming Product Indices

Then follow with these exact headings in Slack bold format (using asterisks):
{first_heading}
[Answer - be clear and concise about the decision made]

{bullet_sections}

IMPORTANT FORMATTING INSTRUCTIONS:
1. Each bullet point should begin with a single asterisk (*) immediately followed by text with no space in between.
2. Do not use nested formatting within bullet points - avoid using bold or other special formatting inside bullet points.
3. If you need to emphasize a point, use ALL CAPS for emphasis instead.
4. Keep all bullet points as single, continuous lines of text.

IMPORTANT STRUCTURE GUIDELINES:
1. Vary your approach to each section based on what's most relevant - some sections may need only 2-3 key points while others might require more depth.
2. Prioritize quality over quantity - it's better to have 3 insightful points than 6 superficial ones.
3. Consider the relative importance of each section for this particular decision - not all sections need equal detail.
4. For the most nuanced or complex points, consider using a brief paragraph instead of a bullet point when it would be clearer.
5. Make the memo feel organic and thoughtful rather than formulaic - avoid having exactly the same number of points in each section.
"""

BULLET_SECTION_HINT = (
    "[Use bullet points that start with a single asterisk immediately followed by text "
    "with no space in between]"
)


DECISION_MEMO_PROMPT = """
You are writing a Decision Memo as an executive who values first-principles thinking, ownership, mission alignment, and truth-speaking.

The conversation context is:
{context}

{participants_line}

Create a Decision Memo that answers these five questions:
{memo_questions}
{structure}
Be concise but thorough in your content. Don't fabricate information, but do connect the decision to deeper strategic thinking where the connection is clear from the context.
"""


CLARIFIED_MEMO_PROMPT = """
You are writing a Decision Memo as an executive who values first-principles thinking, ownership, mission alignment, and truth-speaking.

The conversation context is:
{context}

{participants_line}

Additional clarification:
{clarification}

Create a Decision Memo that answers these five questions:
{memo_questions}
{structure}
ADDITIONAL CONTENT INSTRUCTIONS:
1. Carefully incorporate insights from ALL the clarifying questions and answers, especially the final "anything else" question.
2. Pay special attention to any new information that was provided in response to the final question.
3. Make sure the decision memo reflects a complete understanding of the situation, including any nuances, concerns, or context added in the clarification phase.
4. Connect these additional insights to the strategic reasoning, risk assessment, and alternatives consideration.

Be concise but thorough in your content. Don't fabricate information, but do connect the decision to deeper strategic thinking where the connection is clear from the context.

DO NOT include the clarifying questions and answers in the memo.
"""


FALLBACK_MEMO = """# {title}

{first_heading}
Based on the {source}, a decision was made but I couldn't generate a specific memo due to a technical issue.

{second_heading}
*Several factors were likely considered

{third_heading}
*There may be various risks associated with this decision

{fourth_heading}
*There are likely benefits to balance the risks

{fifth_heading}
*Alternative approaches were likely evaluated

Note: There was an error connecting to the AI service. Please try again later."""


def participants_line(participants: str) -> str:
    """Optional participants sentence; empty when no participants are known."""
    return f"The participants are: {participants}" if participants else ""
