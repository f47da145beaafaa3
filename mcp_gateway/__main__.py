from mcp_gateway.main import run

run()
