"""
Application Workflows.

Components:
- base: Tenant-checked loaders, AI calls and the shared auto-approval attempt
- create_request: Register a discount request and route it
- auto_approve: Re-run the auto-approval gate on a stored request
- review: Confirm or override an AI approval
- decide: Manual approve / reject / adjustment request
- learning: Retrain the AI model on decided requests (incremental or full)
"""
