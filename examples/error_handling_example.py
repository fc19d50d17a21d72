"""
Example demonstrating error handling in LLMGate.

Only three errors ever reach the caller of an exchange: the conversation no
longer fits the model, the provider failed (after retries when transient), or
the model kept calling tools past the round-trip cap. Tool failures are fed
back to the model and never raised.
"""

from llmgate import (
    CompletionOrchestrator,
    ContextWindowExceededError,
    ConversationBuilder,
    GenericProviderError,
    ToolLoopExceededError,
    ToolSet,
    create_provider,
)


def lookup_order(order_id: str) -> dict:
    """Look up an order by id."""
    if not order_id.startswith("ORD-"):
        raise ValueError(f"malformed order id: {order_id}")
    return {"order_id": order_id, "status": "shipped"}


async def example_basic_error_handling():
    """Handle every failure classification of an exchange."""
    print("\n=== Basic Error Handling ===\n")

    orchestrator = CompletionOrchestrator(create_provider(), ToolSet([lookup_order]), max_round_trips=3)
    conversation = ConversationBuilder().push_user("Where is order 1234?").build()

    try:
        result = await orchestrator.run(conversation)
        print(f"Success: {result.final_response}")
        for entry in result.tool_execution_history:
            if entry["error"]:
                print(f"Tool error fed back to the model: {entry['result']}")

    except ContextWindowExceededError as e:
        print(f"Input too long: {e}")
        print("Tip: Drop older messages and retry")

    except ToolLoopExceededError as e:
        print(f"Gave up after {e.max_round_trips} tool round trips ({e.tool_calls_made} calls)")

    except GenericProviderError as e:
        print(f"Provider failed (retryable={e.retryable}): {e}")
        print(f"Original error: {e.cause!r}")


async def example_truncate_on_overflow():
    """Drop the oldest turns until the conversation fits."""
    print("\n=== Truncate on Context Overflow ===\n")

    orchestrator = CompletionOrchestrator(create_provider())
    history = ["Tell me a long story."] * 50 + ["Now summarize it in one sentence."]

    while history:
        builder = ConversationBuilder()
        for text in history:
            builder.push_user(text)
        try:
            result = await orchestrator.run(builder.build())
            print(f"Answered with {len(history)} message(s): {result.final_response}")
            return
        except ContextWindowExceededError:
            history = history[len(history) // 2 :]
            print(f"Context overflow; retrying with {len(history)} message(s)")


if __name__ == "__main__":
    import asyncio

    async def main():
        await example_basic_error_handling()
        await example_truncate_on_overflow()

    asyncio.run(main())
