from cas.expressions import *
from cas.functions import sin, cos, exp, log, sqrt
from cas.simplify import expand, substitute, evaluate
from cas.derivatives import derivative, gradient, hessian
from cas.integrals import integrate
from cas.intpoly import IntPoly
from cas.finite_field import PolyZp, factor_with_multiplicities
from cas.polynomials import groebner
from cas.patterns import Wildcard, PFunction, replace
from cas.rewriting import identity_rules
from cas.solve import solve, solve_system, newton
import logging

logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

x, y, z = symbols("x y z")
A, B = symbols("A B", Commutativity.matrix)

def show(label, value):
    print(f"{label:<28} {value}")

print("-- canonical form")
show("x + x + y", x + x + y)
show("x*x*x / x", x * x * x / x)
show("A*B (matrix symbols)", A * B)
show("(x + 1)**3 expanded", expand((x + 1)**3))
show("sqrt(8)", sqrt(8))
show("I**7", I**7)

print("-- calculus")
f = sin(x**2) * exp(x)
show("d/dx sin(x**2) exp(x)", derivative(f, x))
show("d2/dx2 x**5", derivative(x**5, x, 2))
show("gradient of x*y + y*z", gradient(x*y + y*z, [x, y, z]))
show("hessian of x**2 y", hessian(x**2 * y, [x, y]))
show("integral x cos(x)", integrate(x * cos(x), x))
show("integral (2x+1)**3", integrate((2*x + 1)**3, x))
show("integral 0..pi sin(x)", integrate(sin(x), x, 0, pi))
show("integral exp(x**2)", integrate(exp(x**2), x))

print("-- univariate polynomials")
p = IntPoly([-1, 0, 1])
q = IntPoly([1, 2, 1])
show("gcd(x**2 - 1, (x + 1)**2)", p.gcd(q).to_expression(x))
show("divmod", divmod(IntPoly([1, 0, 0, 1]), IntPoly([1, 1])))
show("square-free (x+1)**2 (x-2)", (q * IntPoly([-2, 1])).square_free())

print("-- finite fields")
g = PolyZp([1, 0, 0, 0, 1], 2)
unit, factors = factor_with_multiplicities(g)
show("x**4 + 1 over Z/2", " * ".join(f"({h.to_expression(x)})**{k}" for h, k in factors))
g = PolyZp.from_signed_coeffs([-1, 0, 0, 0, 0, 1], 11)
unit, factors = factor_with_multiplicities(g)
show("x**5 - 1 over Z/11", [str(h.to_expression(x)) for h, k in factors])

print("-- groebner bases")
G = groebner([x**2 + y**2 - 1, x - y], [x, y], "lex")
show("circle and line (lex)", [str(h.to_expression()) for h in G])
show("solutions", solve_system([(x**2 + y**2, 2), (x, y)], [x, y]))

print("-- solving")
show("x**2 - 2 = 0", solve(x**2 - 2, x))
show("x**2 + 1 = 0", solve(x**2 + 1, x))
show("x**3 - 2 = 0 (numeric)", solve(x**3 - 2, x))
show("newton cos(x) = x", newton(cos(x) - x, x, 1.0))

print("-- patterns and rewriting")
a = Wildcard("a")
show("sin -> cos", replace(sin(x) + sin(y**2), PFunction("sin", [a]), PFunction("cos", [a])))
result, trace = identity_rules().rewrite(cos(-x) + log(exp(y)), trace=True)
show("identities", result)
print(trace.format())

print("-- numeric evaluation")
e = substitute(sqrt(x**2 + y**2), {y: 4})
show("sqrt(x**2 + 16) at x = 3", evaluate(e, {x: 3}))
