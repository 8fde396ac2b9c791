"""
TLS material for the QUIC endpoints.

The responder needs a certificate but nobody verifies it, so by default a
throwaway self-signed pair is generated at start-up.
"""
import datetime
import ssl

from aioquic.quic.configuration import QuicConfiguration
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID


def generate_self_signed(common_name="localhost"):
    """Return (certificate, private_key) valid for one day."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(x509.SubjectAlternativeName([x509.DNSName(common_name)]), critical=False)
        .sign(key, hashes.SHA256())
    )
    return certificate, key


def server_configuration(alpn, certfile=None, keyfile=None):
    configuration = QuicConfiguration(is_client=False, alpn_protocols=[alpn])
    if certfile:
        configuration.load_cert_chain(certfile, keyfile)
    else:
        configuration.certificate, configuration.private_key = generate_self_signed()
    return configuration


def client_configuration(alpn, server_name=None, insecure=True):
    configuration = QuicConfiguration(is_client=True, alpn_protocols=[alpn], server_name=server_name)
    if insecure:
        configuration.verify_mode = ssl.CERT_NONE
    return configuration
