"""Query service that answers locally: web search + LLM, no intermediate backend."""
import json
import logging

from ports.llm import LLMPort
from ports.query import QueryServicePort
from ports.search import SearchPort
from domain.exceptions import AdapterError
from domain.models import ConversationTurn, QueryRequest, QueryResponse
from exploration.follow_up import extract_follow_ups

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are an expert in argumentation and logic. You take material apart
in depth and explain complex theory in plain, everyday language.

Whenever you receive material or a claim, analyse it in four parts, each under a #### heading:
#### Background and Conclusion
Briefly summarise the core background and the conclusion the material ultimately argues for.
#### Arguments and Evidence
List the main evidence or chain of reasoning that supports the conclusion.
#### Logical Gaps
The core step: examine the material for flaws in its reasoning. Look especially for
* reversed causation, shifting definitions, hasty generalisation from biased samples, false dilemmas;
* and say exactly at which step each gap appears.
#### Everyday Example
Map the abstract logic onto a vivid everyday scene that anyone would grasp at a glance.

Finally, give 3 follow-up questions under a heading that says "Follow-up Questions":
* Evidence check: a question about the accuracy of a detail or figure in the material.
* Perspective flip: a question from the opposing side that challenges the core premise.
* Extreme case: a question that pushes the logic to an extreme to find its limits."""


def format_conversation(turns: list[ConversationTurn]) -> str:
    parts = []
    for turn in turns:
        text = ""
        if turn.user:
            text += f"User: {turn.user}\n"
        if turn.assistant:
            text += f"Assistant: {turn.assistant}\n"
        parts.append(text)
    return "\n".join(parts)


def build_user_prompt(request: QueryRequest, search_payload: dict) -> str:
    breadth = "broad and exploratory" if request.follow_up_mode == "expansive" else "focused and specific"
    return (
        f"Previous conversation:\n{format_conversation(request.previous_conversation)}\n\n"
        f'Search results about "{request.query}":\n{json.dumps(search_payload, ensure_ascii=False, default=str)}\n\n'
        f"Please provide a comprehensive response about {request.concept or request.query}. "
        "Include relevant facts, context, and relationships to other topics. "
        "Format the response in markdown with #### headers. "
        f"The response should be {breadth}."
    )


class DirectQueryServiceAdapter(QueryServicePort):
    """
    Answers a question the way the hosted search endpoint does:

    1. Web search (3 results, with images) for grounding
    2. One chat completion with the analyst prompt
    3. Split the answer into body and follow-up questions
    """

    def __init__(self, llm: LLMPort, searcher: SearchPort, max_results: int = 3):
        self.llm = llm
        self.searcher = searcher
        self.max_results = max_results

    @property
    def provider_name(self) -> str:
        return f"direct:{self.searcher.provider_name}+{self.llm.provider}"

    async def search(self, request: QueryRequest) -> QueryResponse:
        try:
            results = await self.searcher.search(
                request.query,
                max_results=self.max_results,
                include_images=True,
            )
            answer = await self.llm.generate(
                prompt=build_user_prompt(request, results.raw),
                system_prompt=SYSTEM_PROMPT,
            )
        except AdapterError:
            raise
        except Exception as e:
            raise AdapterError("DirectQueryServiceAdapter", "search", e)

        extraction = extract_follow_ups(answer)
        logger.debug(
            "Parsed %d follow-up question(s) for %r", len(extraction.follow_up_questions), request.query
        )
        return QueryResponse(
            response=extraction.main_text,
            follow_up_questions=extraction.follow_up_questions,
            contextual_query=request.query,
            sources=results.sources,
            images=results.images,
        )
