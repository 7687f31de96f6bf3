"""certbot-dns-coredns tests"""
