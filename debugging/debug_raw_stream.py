import dotenv

from langchain_agentstream import AgentStreamClient, StreamDecoder
from langchain_agentstream.streaming import CHAT_STREAM_PATH, ChatStreamRequest

dotenv.load_dotenv()

client = AgentStreamClient()
http = client._http
decoder = StreamDecoder()

payload = ChatStreamRequest(message="Di: hola").model_dump(by_alias=True)

with http.stream_post_json(CHAT_STREAM_PATH, payload) as r:
    http.check_stream_status(r)
    for i, chunk in enumerate(r.iter_bytes()):
        print("i=", i, "len=", len(chunk))
        print("raw=", repr(chunk))
        for p in decoder.feed(chunk):
            print("payload:", repr(p))

for p in decoder.finish():
    print("payload (flush):", repr(p))

client.close()
