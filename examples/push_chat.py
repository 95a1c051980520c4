import asyncio

import dotenv

from langchain_agentstream import AgentStreamClient

dotenv.load_dotenv()


async def main() -> None:
    async with AgentStreamClient() as client:
        reason = await client.listen_chat(
            "¿Qué tiempo hace en Madrid?",
            lambda text: print(text, end="", flush=True),
            on_complete=lambda: print("\n[completado]"),
            on_error=lambda err: print(f"\n[error] {err!r}"),
            cutoff_s=30.0,  # CAUTION: las respuestas más largas que el corte quedan truncadas
        )
    print("Motivo:", reason.value)


asyncio.run(main())
