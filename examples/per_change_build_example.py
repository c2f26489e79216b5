"""
Example walking a job through poll/checkout cycles against an in-memory depot.
"""
import asyncio
import logging
from p4scm.client import InMemoryDepot, InMemoryRemoteClient
from p4scm.config.config_loader import ScmConfigLoader
from p4scm.scm import CheckoutOrchestrator, PollingEngine, build_env_vars
from p4scm.state import InMemoryBuildStore

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def per_change_example():
    """Build every submitted change in turn"""
    print("\n=== Per-change Build Example ===")

    depot = InMemoryDepot()
    depot.submit(101, "alice", ["//depot/main/src/app.c"])
    depot.submit(102, "buildbot", ["//depot/main/version.txt"])
    depot.submit(103, "bob", ["//depot/main/docs/readme.txt", "//depot/main/src/app.c"])

    config = ScmConfigLoader.load_from_dict({
        'name': 'project',
        'credential': 'builder@perforce:1666',
        'workspace': {
            'name': 'jenkins-${NODE_NAME}-${JOB_NAME}',
            'view': ['//depot/main/... //${P4_CLIENT}/...']
        },
        'filters': [
            {'type': 'user', 'user': 'buildbot'},
            {'type': 'per_change'}
        ]
    })

    def client_factory(credential, workspace):
        return InMemoryRemoteClient(depot, credential, workspace)

    store = InMemoryBuildStore()
    env = {'NODE_NAME': 'node1', 'JOB_NAME': 'project', 'P4_CLIENT': 'jenkins-node1-project'}
    engine = PollingEngine(config, store, client_factory)
    orchestrator = CheckoutOrchestrator(config, store, client_factory, changelog_dir="./data/example_changelogs")

    build_id = 1
    while True:
        decision = await engine.poll(env=env)
        print(f"Poll: {decision.result.value} changes={decision.changes} next={decision.next_change}")
        if not decision.build_now:
            break

        result = await orchestrator.checkout(build_id, env)
        print(f"Build #{build_id}: {result.record.revision}, changelog {[e.id for e in result.changelog]}")
        print(f"  env: {await build_env_vars(result.record, client_factory)}")
        build_id += 1


async def label_example():
    """Pin a job to a label whose spec names a change"""
    print("\n=== Label Pin Example ===")

    depot = InMemoryDepot()
    depot.submit(201, "carol", ["//depot/rel/src/app.c"])
    depot.submit(205, "carol", ["//depot/rel/src/app.c"])
    depot.add_label("release-2", revision_spec="@201")

    config = ScmConfigLoader.load_from_dict({
        'name': 'release',
        'credential': 'builder',
        'workspace': 'release-${NODE_NAME}',
        'populate': {'pin': 'release-${VERSION}', 'force': True}
    })

    def client_factory(credential, workspace):
        return InMemoryRemoteClient(depot, credential, workspace)

    store = InMemoryBuildStore()
    orchestrator = CheckoutOrchestrator(config, store, client_factory, changelog_dir="./data/example_changelogs")

    result = await orchestrator.checkout(1, {'NODE_NAME': 'node2', 'VERSION': '2'})
    print(f"Synced {result.record.client} to {result.record.revision}")


async def main():
    await per_change_example()
    await label_example()


if __name__ == "__main__":
    asyncio.run(main())
