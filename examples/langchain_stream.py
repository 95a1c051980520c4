import dotenv

from langchain_core.messages import HumanMessage
from langchain_agentstream import ChatAgentStream

dotenv.load_dotenv()

model = ChatAgentStream()

for token in model.stream([HumanMessage(content="Explica en un párrafo qué es la ciencia")]):
    print(token.content, end="", flush=True)
print()

res = model.invoke([HumanMessage(content="Di: hola")])
print("Respuesta completa:", res.content)
