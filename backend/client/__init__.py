"""
Client-side map synchronization.

Everything here runs on one asyncio event loop: viewport-settle events trigger
bounded bbox queries, responses replace the working set, and the cluster engine
re-renders from the current snapshot.
"""
