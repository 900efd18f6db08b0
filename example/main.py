import asyncio

from provisioning_client.config import ClientConfig
from provisioning_client.errors import ProvisioningError, WaitTimeoutError
from provisioning_client.models import OperationKind, ResourceSpec, WaitPolicies, WaitPolicy
from provisioning_client.provisioning_client import ProvisioningClient
from provisioning_server import ProvisioningServer


async def main():
    PORT = 8000
    server = ProvisioningServer(completion_time=5.0, queued_time=1.0, not_found_polls=1)
    await server.start(port=PORT)
    print(f"Server started on http://localhost:{PORT}")

    config = ClientConfig.build(endpoint=f"http://localhost:{PORT}/", token="example-token")
    policy = WaitPolicy.build(timeout=60.0, min_poll_interval=1.0, initial_delay=1.0)
    policies = WaitPolicies.build(create=policy, update=policy, delete=policy, default=policy)

    async with ProvisioningClient(config, policies) as client:
        try:
            result = await client.apply(
                ResourceSpec(
                    path="/datacenters",
                    body={"properties": {"name": "example", "location": "de/fra"}},
                ),
                OperationKind.create,
            )
            print(f"Final status: {result['metadata']['status']}")
        except WaitTimeoutError as e:
            print(f"Polling timed out: {e}")
        except ProvisioningError as e:
            print(f"Error occurred: {e}")

    await asyncio.sleep(1)


if __name__ == "__main__":
    asyncio.run(main())
