import dotenv

from langchain_agentstream import AgentStreamClient

dotenv.load_dotenv()

with AgentStreamClient() as client:
    client.stream_chat(
        "Explica en un párrafo qué es la ciencia",
        lambda text: print(text, end="", flush=True),
    )
    print()

    # Generación de código en streaming
    client.stream_code(
        "Script que comprima los logs de más de 7 días",
        lambda text: print(text, end="", flush=True),
        language="Shell",
    )
    print()
