"""Examples of basic LLMGate usage."""

from typing import Annotated

from pydantic import BaseModel, Field

from llmgate import (
    AsyncTool,
    CompletionOrchestrator,
    ConversationBuilder,
    RequestExtensions,
    ToolSet,
    count_tokens,
    create_provider,
)


# Example 1: Simple exchange, no tools
async def example_simple_exchange():
    """One question, one answer."""
    print("=" * 60)
    print("Example 1: Simple Exchange")
    print("=" * 60)

    conversation = (
        ConversationBuilder()
        .push_system("You are a helpful geography assistant.")
        .push_user("What is the capital of France?")
        .build()
    )
    print(f"Prompt tokens (approx.): {count_tokens('What is the capital of France?')}")

    result = await CompletionOrchestrator(create_provider()).run(conversation)

    print(f"Response: {result.final_response}")
    print(f"Tokens used: {result.tokens_used}")
    print()


# Example 2: Plain functions as tools
def get_weather(location: str, unit: str = "celsius") -> str:
    """Get the current weather for a location.

    Args:
        location: The city and country, e.g. "San Francisco, CA"
        unit: Temperature unit, either "celsius" or "fahrenheit"
    """
    # Simulated weather response
    temps = {
        "Tokyo, Japan": 22,
        "San Francisco, CA": 18,
        "London, UK": 12,
    }
    temp = temps.get(location, 20)
    return f"The weather in {location} is {temp} degrees {unit} and sunny."


async def example_tool_execution():
    """The model calls get_weather (possibly twice in one turn) before answering."""
    print("=" * 60)
    print("Example 2: Tool Execution")
    print("=" * 60)

    conversation = (
        ConversationBuilder()
        .push_system("You are a helpful weather assistant. Use the get_weather tool to get current weather.")
        .push_user("What's the weather like in Tokyo, Japan? Also check San Francisco.")
        .build()
    )
    orchestrator = CompletionOrchestrator(create_provider(), ToolSet([get_weather]))
    result = await orchestrator.run(conversation)

    print(f"Response: {result.final_response}\n")
    print(f"Tool calls made: {result.tool_calls_made} in {result.round_trips} round trip(s)")
    print("\nTool execution history:")
    for i, exec_info in enumerate(result.tool_execution_history, 1):
        print(f"  {i}. {exec_info['tool_name']}({exec_info['arguments']}) -> {exec_info['result']}")
    print()


# Example 3: A typed async tool
class StockQuery(BaseModel):
    symbol: Annotated[str, Field(description='Stock ticker symbol like "AAPL" or "GOOGL"')]


class StockPrice(AsyncTool):
    name = "get_stock_price"
    description = "Get the current stock price for a symbol"
    input_model = StockQuery

    async def run(self, arguments, context=None):
        # Simulated stock prices
        prices = {"AAPL": 175.50, "GOOGL": 142.30, "MSFT": 380.20}
        return {"symbol": arguments.symbol.upper(), "price": prices.get(arguments.symbol.upper(), 100.00)}


async def example_multi_turn_with_tools():
    """Keep the conversation returned by one exchange and continue it."""
    print("=" * 60)
    print("Example 3: Multi-turn Conversation with Tools")
    print("=" * 60)

    orchestrator = CompletionOrchestrator(create_provider(), ToolSet([StockPrice]))

    first = await orchestrator.run(ConversationBuilder().push_user("What does AAPL trade at?").build())
    print("User: What does AAPL trade at?")
    print(f"Assistant: {first.final_response}\n")

    follow_up = ConversationBuilder.from_conversation(first.conversation).push_user("And MSFT?").build()
    second = await orchestrator.run(follow_up)
    print("User: And MSFT?")
    print(f"Assistant: {second.final_response}\n")

    print(f"Total tool calls in conversation: {first.tool_calls_made + second.tool_calls_made}")
    print()


# Example 4: Streaming
async def example_streaming():
    """Print the answer as it arrives, with tool calls inline."""
    print("=" * 60)
    print("Example 4: Streaming")
    print("=" * 60)

    conversation = ConversationBuilder().push_user("Is it warmer in London, UK or Tokyo, Japan?").build()
    orchestrator = CompletionOrchestrator(create_provider(), ToolSet([get_weather]))

    async for part in orchestrator.stream(conversation):
        if part.kind == "content":
            print(part.content, end="", flush=True)
        elif part.kind == "tool_call":
            print(f"\n[calling {part.tool_call.name}({part.tool_call.arguments_json})]")
        elif part.kind == "tool_result":
            print(f"[result: {part.tool_result.content}]")
    print("\n")


# Example 5: Chained tool calling with a response cap
async def example_chained_tools():
    """Offer a tool catalogue instead of full schemas; cap each response at 200 tokens."""
    print("=" * 60)
    print("Example 5: Chained Tool Calling")
    print("=" * 60)

    orchestrator = CompletionOrchestrator.chained(create_provider(), ToolSet([get_weather, StockPrice]))
    conversation = ConversationBuilder().push_user("How is the weather in London, UK?").build()

    result = await orchestrator.run(conversation, extensions=RequestExtensions(max_tokens=200))

    print(f"Response: {result.final_response}")
    for entry in result.tool_execution_history:
        print(f"  {entry['tool_name']}({entry['arguments']}) -> {entry['result']}")
    print()


if __name__ == "__main__":
    import asyncio

    async def main():
        await example_simple_exchange()
        await example_tool_execution()
        await example_multi_turn_with_tools()
        await example_streaming()
        await example_chained_tools()

    asyncio.run(main())
