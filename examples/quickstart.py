# /// script
# requires-python = ">=3.11"
# dependencies = [
#     "tripwire",
# ]
#
# [tool.uv.sources]
# tripwire = { path = "../", editable = true }
# ///

import os

import tripwire

if not os.getenv("TRIPWIRE_DSN"):
    raise ValueError("Set TRIPWIRE_DSN, e.g. https://public@errors.example.com/1")

tripwire.configure(
    environment_name="local",
    release="0.1.0",
    in_app_module_allow_list=["__main__"],
    request_retries=[1, 2],
)


# Example 1: Decorated function, exceptions are reported and re-raised
@tripwire.capture_errors(tags={"job": "invoice"})
def charge(customer_id, amount):
    if amount <= 0:
        raise ValueError(f"invalid amount {amount} for {customer_id}")
    return amount


# Example 2: Context and breadcrumbs scoped to one unit of work
def handle_request(path):
    with tripwire.context_scope():
        tripwire.set_user_context({"id": 42})
        tripwire.set_request_context({"method": "GET", "url": path})
        tripwire.add_breadcrumb({"message": f"routing {path}", "category": "router"})

        try:
            return {"/health": "ok"}[path]
        except KeyError as e:
            # Synchronous send waits for the remote event ID
            remote_id = tripwire.capture_exception(e, sync=True)
            print(f"Reported unknown route, event ID: {remote_id}")


if __name__ == "__main__":
    handle_request("/missing")

    try:
        charge("cus_123", 0)
    except ValueError:
        pass

    tripwire.capture_message("quickstart finished", level="info")
    tripwire.shutdown()
