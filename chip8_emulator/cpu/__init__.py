"""CPU core: register file, decoder and ALU helpers."""
