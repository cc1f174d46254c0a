# Static provider documentation included in every diagnosis prompt.

PROVIDER_KNOWLEDGE = """
CLOUD PROVIDER API COMMON ERRORS AND SOLUTIONS:

1. Authentication errors (401):
   - Invalid or missing API token
   - Token lacks required scopes
   - Solution: verify token and scopes in account settings

2. Rate limiting (429):
   - Too many requests per hour/minute
   - Solution: exponential backoff, reduce request frequency

3. Resource limits (422):
   - Account limits exceeded (droplet limit, volume limit)
   - Solution: check account limits, upgrade plan, or delete unused resources

4. Invalid parameters (400):
   - Invalid region, size slug or image slug
   - Missing required parameters
   - Solution: verify parameter values against API documentation

5. Insufficient resources (422):
   - Not enough quota for requested size
   - Size not available in region
   - Solution: try a different size or region

6. Network / DNS issues:
   - Domain not configured properly
   - DNS propagation delays
   - Solution: verify domain ownership, wait for propagation

7. SSH key issues:
   - Invalid SSH key format
   - SSH key already exists
   - Solution: validate key format, check existing keys

PROVIDER PARAMETERS:
- Regions: nyc1, nyc3, ams3, sfo3, sgp1, lon1, fra1, tor1, blr1, syd1
- Sizes: s-1vcpu-1gb, s-1vcpu-2gb, s-2vcpu-2gb, s-2vcpu-4gb, s-4vcpu-8gb
- Images: ubuntu-22-04-x64, ubuntu-20-04-x64, debian-11-x64
""".strip()
