"""Internal implementation of `~certbot_dns_coredns.dns_coredns` plugin."""
