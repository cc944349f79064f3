#!/usr/bin/env python3
"""Simple example of using the CalcFlow workspace"""

import asyncio

from calcflow import create_workspace


async def main():
    # Create workspace
    workspace = create_workspace()

    # Nodes refer to each other by header
    price = await workspace.add_node("Price", "19.99")
    await workspace.add_node("Quantity", "3")
    total = await workspace.add_node("Total", "Price * Quantity")
    await workspace.add_node("Root", "sqrt(Total)")

    print("Initial results:")
    for node_id in workspace.node_ids:
        print(f"  {workspace.header_of(node_id)} = {workspace.result_of(node_id)}")

    # Changing one node updates everything that depends on it
    await workspace.set_expression(price, "24.5")
    await workspace.settle()

    print("\nAfter changing Price:")
    for node_id in workspace.node_ids:
        print(f"  {await workspace.latex_of(node_id)}")

    # Autocomplete
    print("\nSuggestions for 'p':")
    for suggestion in workspace.suggestions("p"):
        print(f"  {suggestion.label} ({suggestion.kind})")

    # Export
    print(f"\nExported: {workspace.export_records()}")
    print(f"Total: {workspace.result_of(total)}")


asyncio.run(main())
